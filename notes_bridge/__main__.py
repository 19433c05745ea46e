import sys

from notes_bridge.stdio_server import main

sys.exit(main())
