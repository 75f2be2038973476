from sumkeep.cli import main

raise SystemExit(main())
