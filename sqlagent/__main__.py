from sqlagent.cli import main

main()
