import sys

from forgeplan.cli import main

sys.exit(main())
