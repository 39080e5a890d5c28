"""Allow ``python -m hdlcheck``."""

from hdlcheck.main import main

raise SystemExit(main())
