from django.db.models import Q
from django.utils.deprecation import MiddlewareMixin

from .models import Company


class CurrentCompanyMiddleware(MiddlewareMixin):
    """
    Attach request.company (the tenant) for the ledger views.
    Resolution order: session "active_company_id", then the user's
    default company. Unauthenticated requests get None.
    """

    def process_request(self, request):
        request.company = None
        user = getattr(request, "user", None)
        if user is None or not user.is_authenticated:
            return

        request.company = getattr(user, "default_company", None)

        # If user switched companies, choice is stored in the session
        session = getattr(request, "session", None)
        company_id = session.get("active_company_id") if session is not None else None
        if company_id:
            # prevent jumping into a company the user has no tie to
            request.company = (
                Company.objects.filter(pk=company_id)
                .filter(Q(owner=user) | Q(default_users=user))
                .first()
            )
