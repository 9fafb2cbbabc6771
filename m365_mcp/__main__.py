from m365_mcp.main import main

main()
