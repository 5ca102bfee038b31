from campussync.cli import main

raise SystemExit(main())
