"""Package entry point for ``python -m respeecher_client``.

WHY: Users run the client as ``python -m respeecher_client <command>``
without installing the console script.

HOW: Delegates to the CLI's main() function.
"""

import sys

from respeecher_client.cli import main

if __name__ == "__main__":
    sys.exit(main())
