import sys

from linkcrawler.cli import main

sys.exit(main())
