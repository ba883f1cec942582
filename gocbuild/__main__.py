import sys

from gocbuild.cli import main

sys.exit(main())
