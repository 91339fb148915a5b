from storyloom.main import main

main()
