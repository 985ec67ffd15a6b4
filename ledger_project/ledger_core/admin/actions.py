from django.contrib import admin, messages
from django.core.exceptions import ObjectDoesNotExist, ValidationError
from django.utils.translation import gettext_lazy as _

from ledger_core.exceptions import error_message
from ledger_core.services.inventory import post_inventory_movements
from ledger_core.services.payment import post_payment
from ledger_core.services.periods import soft_close
from ledger_core.services.posting import post_transaction_set
from ledger_core.services.transaction_sets import submit_for_review

# ---------- Admin actions ----------


def _run_bulk(modeladmin, request, queryset, label, operation):
    """
    Apply `operation(obj)` to each selected row.
    Every service call opens its own transaction, so one failure
    does not undo the rows already processed.
    """
    success = 0
    failures = 0
    for obj in queryset:
        try:
            operation(obj)
            success += 1
        except (ValidationError, ObjectDoesNotExist) as exc:
            failures += 1
            modeladmin.message_user(
                request,
                _("Could not %(label)s %(obj)s: %(err)s")
                % {"label": label, "obj": obj, "err": error_message(exc)},
                level=messages.ERROR,
            )

    # Final summary message
    modeladmin.message_user(
        request,
        _("%(label)s: %(success)d succeeded, %(failures)d failed.")
        % {"label": label.capitalize(), "success": success, "failures": failures},
        level=messages.SUCCESS if failures == 0 else messages.WARNING,
    )


@admin.action(description="Post selected transaction sets")
def post_transaction_sets(modeladmin, request, queryset):
    def _post(ts):
        if ts.source == "inventory":
            post_inventory_movements(ts.company, request.user, ts.pk)
        else:
            post_transaction_set(ts.company, request.user, ts.pk)

    _run_bulk(modeladmin, request, queryset.exclude(status__in=["posted", "void"]), "post", _post)


@admin.action(description="Submit selected transaction sets for review")
def submit_transaction_sets(modeladmin, request, queryset):
    _run_bulk(
        modeladmin,
        request,
        queryset.filter(status="draft"),
        "submit",
        lambda ts: submit_for_review(ts.company, request.user, ts.pk),
    )


@admin.action(description="Post selected payments")
def post_payments(modeladmin, request, queryset):
    _run_bulk(
        modeladmin,
        request,
        queryset.filter(status="draft"),
        "post",
        lambda payment: post_payment(payment.company, request.user, payment.pk),
    )


@admin.action(description="Soft-close selected periods")
def soft_close_periods(modeladmin, request, queryset):
    _run_bulk(
        modeladmin,
        request,
        queryset.filter(status="open"),
        "soft-close",
        lambda period: soft_close(period.company, request.user, period.pk),
    )
