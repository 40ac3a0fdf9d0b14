from cip_listings.cli import main

raise SystemExit(main())
