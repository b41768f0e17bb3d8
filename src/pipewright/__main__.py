from pipewright.cli import main

main()
