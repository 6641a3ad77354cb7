import sys

from agentic_patterns.cli import main

sys.exit(main())
