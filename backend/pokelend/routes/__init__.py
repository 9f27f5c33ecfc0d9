# Routes package init
"""
PokeLend Backend — API Routes Package
=======================================

What:  HTTP route handlers that accept requests and return responses.
How:   Each route module handles one resource.

Route Inventory:
    - lending.py:  POST /api/loans                      (strict reservation)
                   POST /api/favorites/{list_id}/borrow (favorite-list borrow)
    - history.py:  GET  /api/history                    (paginated history)
                   GET  /api/history/active             (open reservation groups)
                   PUT  /api/history/{history_id}/return
                   PUT  /api/history/return-multiple
    - catalog.py:  GET  /api/items/{item_id}
                   GET  /api/clans/{clan_name}/items
    - health.py:   GET  /health

Routes stay thin: parse the body, call the service, return the model.
Status codes for failures come from the exception handlers in main.py.
"""
