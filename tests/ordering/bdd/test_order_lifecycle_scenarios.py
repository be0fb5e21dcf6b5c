"""BDD tests for the order state machine."""

from ordering.exceptions import InvalidStateError
from ordering.order.order import OrderItemStatus
from pytest_bdd import parsers, scenarios, then, when

scenarios("features/order_state_machine.feature")


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('the order is paid by "{method}"'))
def pay_order(order, method):
    order.mark_as_paid(method, "PAY-000000000001")


@when("the seller starts preparing the order")
def start_preparing(order):
    order.start_preparing()


@when(parsers.cfparse('the order is shipped with tracking number "{tracking_number}"'))
def ship_order(order, tracking_number, error):
    try:
        order.ship(tracking_number)
    except InvalidStateError as exc:
        error["exc"] = exc


@when("the order is delivered")
def deliver_order(order):
    order.deliver()


@when(parsers.cfparse('the order is cancelled because "{reason}"'))
def cancel_order(order, reason, error):
    try:
        order.cancel(reason)
    except InvalidStateError as exc:
        error["exc"] = exc


@when(parsers.cfparse('the item "{product_name}" is cancelled'))
def cancel_item(order, product_name):
    item = next(i for i in order.items if i.product_name == product_name)
    order.cancel_item(item.id)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order status is "{status}"'))
def order_status_is(order, status):
    assert order.status == status


@then("the order is completed")
def order_is_completed(order):
    assert order.is_completed


@then("every item is cancelled")
def every_item_cancelled(order):
    assert all(item.status == OrderItemStatus.CANCELLED.value for item in order.items)


@then(parsers.cfparse("the order total is {total:d}"))
def order_total_is(order, total):
    assert order.total_amount == total
