import sys

from headerbind.cli import main

sys.exit(main())
