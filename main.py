from cosmic_tunes.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
