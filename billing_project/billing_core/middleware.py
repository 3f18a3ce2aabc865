from django.utils.deprecation import MiddlewareMixin
from .models import Company


class CurrentCompanyMiddleware(MiddlewareMixin):
    # Run on every request and
    # attach a .company attribute to the request, based on the logged-in user
    def process_request(self, request):
        request.company = None
        user = getattr(request, "user", None)
        if user is None or not user.is_authenticated:
            # Guests reach documents only through share-link tokens
            return

        owned = Company.objects.filter(owner=user)
        # If user switched companies,
        # choice is stored in the session as "active_company_id"
        company_id = request.session.get("active_company_id")
        if company_id:
            # user must own that company, tampered sessions fall through to None
            request.company = owned.filter(id=company_id).first()
        else:
            request.company = owned.order_by("id").first()
