from morphy.cli import main

main()
