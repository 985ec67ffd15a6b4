from django.urls import path

from . import views

app_name = "ledger_core"

urlpatterns = [
    # transaction sets
    path("transaction-sets/", views.transaction_set_create_view, name="transaction-set-create"),
    path("transaction-sets/<int:set_id>/lines/", views.transaction_set_lines_view, name="transaction-set-lines"),
    path("transaction-sets/<int:set_id>/submit/", views.transaction_set_submit_view, name="transaction-set-submit"),
    path("transaction-sets/<int:set_id>/post/", views.transaction_set_post_view, name="transaction-set-post"),
    path("transaction-sets/<int:set_id>/void/", views.transaction_set_void_view, name="transaction-set-void"),
    # journal
    path("entries/simple/", views.simple_entry_view, name="simple-entry"),
    path("transfers/", views.transfer_view, name="transfer"),
    path("journal-entries/", views.journal_entry_list_view, name="journal-entry-list"),
    path("journal-entries/<int:entry_id>/reverse/", views.journal_entry_reverse_view, name="journal-entry-reverse"),
    path("trial-balance/", views.trial_balance_view, name="trial-balance"),
    # payments
    path("payments/", views.payment_create_view, name="payment-create"),
    path("payments/<int:payment_id>/allocations/", views.payment_allocations_view, name="payment-allocations"),
    path("payments/<int:payment_id>/unallocate/", views.payment_unallocate_view, name="payment-unallocate"),
    path("payments/<int:payment_id>/post/", views.payment_post_view, name="payment-post"),
    path("payments/<int:payment_id>/void/", views.payment_void_view, name="payment-void"),
    # periods
    path("periods/", views.period_calendar_view, name="period-calendar"),
    path("periods/initialize/", views.period_initialize_view, name="period-initialize"),
    path("periods/<int:period_id>/soft-close/", views.period_soft_close_view, name="period-soft-close"),
    path("periods/<int:period_id>/hard-close/", views.period_hard_close_view, name="period-hard-close"),
    path("periods/<int:period_id>/reopen/", views.period_reopen_view, name="period-reopen"),
    # reports
    path("reports/ar-aging/", views.ar_aging_view, name="ar-aging"),
    path("reports/ap-aging/", views.ap_aging_view, name="ap-aging"),
    path("reports/ar-statement/<int:customer_id>/", views.ar_statement_view, name="ar-statement"),
]
