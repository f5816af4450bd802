from compatify.cli import main

main()
