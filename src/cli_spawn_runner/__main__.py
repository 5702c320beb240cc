"""CLI Spawn Runner 入口点。

支持: python -m cli_spawn_runner
"""

from .app import main

if __name__ == "__main__":
    main()
