from broker_service.api.app import main

main()
