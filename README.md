# mallcore

mallcore is the business core of an online shop. It covers product
categories, stock keeping and orders. It has no dependencies outside the
standard library.

Each domain (`mallcore.category`, `mallcore.inventory`, `mallcore.order`) has
the same four modules:

- `dto`: dataclasses for stored records, requests and responses.
  - Stored records: `Category`, `Inventory`, `InventoryLog`,
    `InventoryReservation`, `Order` and `OrderItem`.
  - Request classes are built from parsed JSON with `from_dict`, or from
    query-string mappings with `from_query`. Invalid input raises
    `InvalidRequestError`.
  - Response classes are built from records, for example with
    `InventoryResponse.from_inventory` or `OrderResponse.from_order`.
    `to_dict()` turns them into JSON-ready dicts. These dicts leave out empty
    optional fields, and datetimes are written as ISO 8601 strings.
- `repository`: a `Protocol` that describes the data access, plus one
  in-memory implementation:
  - `InMemoryCategoryRepository` deletes softly. It takes an optional mapping
    of category id to product count.
  - `InMemoryInventoryRepository` uses an optimistic version check on every
    stock change.
  - `InMemoryOrderRepository` stores orders and their items.

  Each repository has a `transaction()` context manager. It restores the
  earlier state if an exception leaves the block.
- `service`: the business rules, `CategoryService`, `InventoryService` and
  `OrderService`.
- `handler`: `CategoryHandler`, `InventoryHandler` and `OrderHandler`. They
  turn raw bodies, path strings and query mappings into `mallcore.web.Response`
  objects, which carry an HTTP `status` and a JSON `body`.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Stock keeping

```python
from mallcore.inventory.dto import CreateInventoryRequest, ReserveStockRequest
from mallcore.inventory.repository import InMemoryInventoryRepository
from mallcore.inventory.service import InventoryService

inventory = InventoryService(InMemoryInventoryRepository())
inventory.create_inventory(
    CreateInventoryRequest.from_dict({"product_id": 1, "available_stock": 10})
)
inventory.reserve_stock(
    ReserveStockRequest.from_dict({"product_id": 1, "quantity": 3, "order_id": 7}),
    30,
)
print(inventory.get_inventory_by_product_id(1).to_dict())
# available_stock 7, reserved_stock 3, total_stock 10, ...
```

What each operation does:

- **Reserving** moves stock from available to reserved. It also records a
  reservation that expires after the given number of minutes.
- **Releasing** moves stock back to available and cancels the order's active
  reservations.
- **Deducting** consumes reserved stock and confirms the reservations.
- **Restocking** and **adjusting** change available stock. An adjustment that
  would take stock below zero raises `InvalidRequestError`.

Every change writes an `InventoryLog` entry. `get_inventory_logs` returns
these entries newest first. `cleanup_expired_reservations` releases up to 100
expired reservations per call. It logs failures and carries on.

## Orders

`OrderService` needs three things:

- an `OrderRepository`;
- an `InventoryService`;
- a product source that matches the `ProductLookup` protocol. This source
  returns `ProductInfo(id, price, main_image)` values keyed by product id.

```python
from mallcore.inventory.dto import CreateInventoryRequest
from mallcore.inventory.repository import InMemoryInventoryRepository
from mallcore.inventory.service import InventoryService
from mallcore.order.dto import CreateOrderRequest
from mallcore.order.repository import InMemoryOrderRepository
from mallcore.order.service import OrderService, ProductInfo


class Catalogue:
    def __init__(self):
        self._products = {1: ProductInfo(id=1, price=1500)}

    def get_products_by_ids(self, product_ids):
        return {pid: self._products[pid] for pid in product_ids if pid in self._products}


inventory = InventoryService(InMemoryInventoryRepository())
inventory.create_inventory(
    CreateInventoryRequest.from_dict({"product_id": 1, "available_stock": 5})
)
orders = OrderService(InMemoryOrderRepository(), inventory, Catalogue())

order = orders.create_order(
    42,
    CreateOrderRequest.from_dict({
        "items": [{"product_id": 1, "quantity": 2}],
        "receiver_name": "Test User",
        "receiver_phone": "555-0100",
        "receiver_address": "1 Example Street",
        "shipping_fee": 500,
    }),
)
print(order.order_no, order.total_amount, order.pay_amount)  # ORD..., 3000, 3500
```

### Placing an order

`create_order` runs these steps in order:

1. It checks that every product exists and has enough available stock.
2. It computes `pay_amount` as `total_amount - discount_amount + shipping_fee`.
3. It stores the order and its items. Each item is named `Product <id>`.
4. It reserves stock for 30 minutes.

If an error message mentions a concurrent update or a version, the whole
attempt is retried, with up to three attempts in total.

### Order lifecycle

- `pay_order` works only on a `pending` order. It consumes the reserved stock
  and marks the order `paid`.
- `ship_order` works only on a `paid` order and marks it `shipped`.
- `complete_order` works only on a `shipped` order and marks it `completed`.
- `cancel_order` refuses orders that are `completed` or `cancelled`. If the
  order is still pending and unpaid, it releases the reserved stock first.
- `update_order_status` sets any status and applies no transition checks.

`generate_order_no()` builds numbers of the form `ORD` + `YYYYMMDDHHMMSS` +
three digits.

## Errors

Services raise subclasses of `mallcore.errors.MallError`:

| Exception | Raised when |
| --- | --- |
| `NotFoundError` | A record is missing. |
| `InvalidRequestError` | Input is bad or breaks a business rule. |
| `InsufficientStockError` | A subclass of `InvalidRequestError`, for stock shortfalls. |
| `PermissionDeniedError` | A user touches another user's order. |
| `ConflictError` | A record already exists. |
| `ConcurrentUpdateError` | A subclass of `ConflictError`, raised on version mismatches. |

Repositories raise `RecordNotFoundError` for missing rows.

## Handlers

Handlers never raise for request or service errors. They return a `Response`.

A successful response has a body of
`{"code": 0, "message": "success", "data": ...}`, with status 200, or 201 on
create.

An error response has a body of `{"code": <status>, "message": ...}`. The
error statuses are:

| Status | Cause |
| --- | --- |
| 400 | Invalid ids or bodies. |
| 401 | An order endpoint other than shipping is called with `user_id=None`. |
| 403 | Access to another user's order. |
| 404 | A record is missing. |
| 500 | Other failures. |

```python
from mallcore.inventory.handler import InventoryHandler

handler = InventoryHandler(inventory)
response = handler.check_stock("1", {"quantity": "2"})
print(response.status, response.body["data"]["is_available"])
```

`routes()` on each handler returns `Route(method, path, handler)` entries,
with paths such as `/inventory/check/:product_id`. You can wire these into a
web framework. The handler callables take different arguments, for example
`body`, `query`, path strings or `user_id`, so each route needs its own
adapter.

## Configuration

`mallcore.config.Config` groups dataclasses for the server, database, Redis,
cache, JWT, e-mail, pagination, inventory and order settings. Every setting
has an empty or zero default. `DatabaseConfig.dsn()` returns a PostgreSQL
keyword/value connection string.

## What is not included

- **No server.** mallcore does not run an HTTP server, and it has no command.
- **No database storage.** The only repositories keep their data in process
  memory.
- **No authentication.** Order handlers expect the caller's `user_id` to be
  passed in.
- **No product catalogue.** You supply one through `ProductLookup`.
- **No configuration loading.** The `Config` classes are not read from files
  or the environment.
- **No scheduling.** Expired reservations are cleaned up only when
  `cleanup_expired_reservations` is called.