import sys

from grammar_cache.cli import main

sys.exit(main())
