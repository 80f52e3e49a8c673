from magnifier_client.cli import main

raise SystemExit(main())
