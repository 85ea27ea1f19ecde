import sys

from sim_import.cli import main

sys.exit(main())
