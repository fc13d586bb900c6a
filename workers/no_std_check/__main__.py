from no_std_check.cli import main

main()
