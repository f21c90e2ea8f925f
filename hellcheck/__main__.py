from hellcheck.main import main

raise SystemExit(main())
