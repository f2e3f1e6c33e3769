import sys

from posttest.cli import main

sys.exit(main())
