from label_ingest.ingest.cli import main

main()
