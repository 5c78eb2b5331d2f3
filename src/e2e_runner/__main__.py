from e2e_runner.cli import main

raise SystemExit(main())
