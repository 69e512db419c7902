from matchmaker.worker import main

raise SystemExit(main())
