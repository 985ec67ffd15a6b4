class TenantAdminMixin:
    """
    Enforce tenant isolation in Django admin.
    Uses request.company (set by CurrentCompanyMiddleware)
    or falls back to request.user.default_company.
    """

    def _get_request_company(self, request):
        company = getattr(request, "company", None)
        if company is None:
            user = getattr(request, "user", None)
            company = getattr(user, "default_company", None)
        return company

    def get_queryset(self, request):
        qs = super().get_queryset(request)

        # superusers see every tenant
        if request.user.is_superuser:
            return qs
        company = self._get_request_company(request)
        if company is None:
            return qs.none()
        return qs.filter(company=company)

    def formfield_for_foreignkey(self, db_field, request, **kwargs):
        """
        Restrict foreignkey dropdowns to the current company:
        the company field itself, and accounts, parties, documents
        and warehouses that are company-scoped.
        """
        if not request.user.is_superuser:
            company = self._get_request_company(request)
            rel_model = db_field.related_model

            if db_field.name == "company":
                if company is not None:
                    kwargs["queryset"] = rel_model.objects.filter(pk=company.pk)
                else:
                    kwargs["queryset"] = rel_model.objects.none()
            elif rel_model is not None and hasattr(rel_model, "company"):
                if company is not None:
                    kwargs["queryset"] = rel_model.objects.filter(company=company)
                else:
                    kwargs["queryset"] = rel_model.objects.none()

        return super().formfield_for_foreignkey(db_field, request, **kwargs)

    def save_model(self, request, obj, form, change):
        # Ensure the object is always owned by the active company (unless superuser)
        if not request.user.is_superuser:
            company = self._get_request_company(request)
            if company is not None:
                obj.company = company
        super().save_model(request, obj, form, change)
