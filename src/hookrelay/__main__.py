"""Entry point for running the HookRelay retry worker.

Usage:
    HOOKRELAY_RETRY_MODE=scheduled python -m hookrelay
"""

from hookrelay.delivery.worker import main

if __name__ == "__main__":
    main()
