from injectfix import main

main()
