import sys

from flowui.cli import main

sys.exit(main())
