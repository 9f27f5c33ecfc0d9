# Services package init
"""
PokeLend Backend — Services Layer
===================================

What:  Business logic between routes (HTTP) and the database.
How:   Services accept plain values, apply lending rules, and return response
       models. Routes obtain them through FastAPI dependencies.

Service Inventory (leaves first):
    - LendingStore / LendingTransaction: transaction runner and storage handle
    - transition_item: version-guarded status change of one item
    - GroupCoordinator: multi-item reserve/return inside one transaction
    - CredentialVerifier: credential → borrower (plaintext implementation)
    - LendingService: reserve, return_one, return_many, reserve_from_group
    - CatalogService: read-only item, clan and history queries
"""
