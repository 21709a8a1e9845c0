# Work tracker: sheet-backed items, service layer, and board sync client
#
# Components:
#   schema.py  - Data model (Item, Progress, Priority)
#   errors.py  - Exception hierarchy shared by server and client
#   sheets.py  - Row store backends (Google Sheets, in-memory)
#   store.py   - Row store adapter: rows <-> Items, row-index identity
#   service.py - Item service: list / create / update progress
#   client.py  - HTTP client for the tracker API
#   board.py   - Board sync client: rendering, optimistic moves, polling
#   config.py  - YAML + environment configuration, logging setup
