from .beat import main

main()
