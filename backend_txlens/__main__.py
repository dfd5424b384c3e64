import sys

from backend_txlens.tools.analyze_transaction import main

sys.exit(main())
