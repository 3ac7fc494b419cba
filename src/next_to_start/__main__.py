from next_to_start.cli import main

main()
