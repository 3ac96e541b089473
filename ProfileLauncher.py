from __future__ import annotations

from profile_launcher import main

if __name__ == "__main__":
    main()
