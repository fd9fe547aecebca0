from signal_ingest.runner import main

main()
