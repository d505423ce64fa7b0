from decimal import Decimal

from marketplace import create_app
from marketplace.extensions import db
from marketplace.models import (
    Category,
    Listing,
    ListingStatus,
    ListingType,
    User,
    UserRole,
    UserStatus,
    VendorProfile,
    VendorVerificationStatus,
)

app = create_app()

with app.app_context():
    # Create initial categories
    categories_data = [
        {"name": "Compliance", "slug": "compliance"},
        {"name": "Financial Analysis", "slug": "financial-analysis"},
        {"name": "Audit Workpapers", "slug": "audit-workpapers"},
        {"name": "Tax Declaration", "slug": "tax-declaration"},
    ]

    categories_dict = {}
    for cat_data in categories_data:
        existing = Category.query.filter_by(slug=cat_data["slug"]).first()
        if not existing:
            category = Category(name=cat_data["name"], slug=cat_data["slug"])
            db.session.add(category)
            db.session.flush()
            categories_dict[cat_data["slug"]] = category
            print(f"Created category: {cat_data['name']}")
        else:
            categories_dict[cat_data["slug"]] = existing

    # Create admin account (if not exists)
    admin_email = "admin@example.com"
    admin = User.query.filter_by(email=admin_email).first()
    if not admin:
        admin = User(
            email=admin_email,
            first_name="Site",
            last_name="Admin",
            role=UserRole.ADMIN,
            status=UserStatus.ACTIVE,
        )
        admin.set_password("admin123")
        db.session.add(admin)
        print(f"Created admin account: {admin_email} / admin123")

    # Create a buyer account
    buyer_email = "user1@example.com"
    if not User.query.filter_by(email=buyer_email).first():
        buyer = User(
            email=buyer_email,
            first_name="Wei",
            last_name="Zhang",
            role=UserRole.USER,
            status=UserStatus.ACTIVE,
            phone="13700137000",
        )
        buyer.set_password("user123")
        db.session.add(buyer)
        print(f"Created buyer account: {buyer_email} / user123")

    # Create vendors and listings
    vendors_data = [
        {
            "email": "vendor1@example.com",
            "company_name": "Assurance Partners",
            "business_number": "91310000000000000X",
            "website": "https://assurance.example.com",
            "listings": [
                {
                    "title": "Internal Control Compliance Checklist",
                    "description": (
                        "Checklist covering finance, operations and "
                        "regulatory controls for internal reviews."
                    ),
                    "price": "0.00",
                    "category": "compliance",
                    "tags": ["controls", "compliance", "risk"],
                    "download_url": (
                        "https://example.com/files/compliance-checklist.xlsx"
                    ),
                },
                {
                    "title": "Standard Audit Workpaper Set",
                    "description": (
                        "Workpaper templates for planning, fieldwork and "
                        "review under current auditing standards."
                    ),
                    "price": "299.00",
                    "category": "audit-workpapers",
                    "tags": ["audit", "workpapers", "templates"],
                    "download_url": (
                        "https://example.com/files/audit-workpapers.zip"
                    ),
                },
            ],
        },
        {
            "email": "vendor2@example.com",
            "company_name": "Finance Experts",
            "business_number": "91110000000000000Y",
            "website": "https://finance.example.com",
            "listings": [
                {
                    "title": "Financial Analysis Excel Template",
                    "description": (
                        "Ratio, trend and forecast analysis workbook for "
                        "corporate finance teams."
                    ),
                    "price": "199.00",
                    "category": "financial-analysis",
                    "tags": ["finance", "analysis", "forecast"],
                    "download_url": (
                        "https://example.com/files/financial-analysis.xlsx"
                    ),
                },
                {
                    "title": "Corporate Income Tax Calculator",
                    "description": (
                        "Spreadsheet with current rate tables and relief "
                        "rules that simplifies tax declaration."
                    ),
                    "price": "159.00",
                    "category": "tax-declaration",
                    "tags": ["tax", "income tax", "calculator"],
                    "download_url": (
                        "https://example.com/files/income-tax-calculator.xlsx"
                    ),
                },
            ],
        },
    ]

    for vendor_data in vendors_data:
        vendor_user = User.query.filter_by(email=vendor_data["email"]).first()
        if not vendor_user:
            vendor_user = User(
                email=vendor_data["email"],
                first_name=vendor_data["company_name"],
                last_name="Team",
                role=UserRole.VENDOR,
                status=UserStatus.ACTIVE,
            )
            vendor_user.set_password("vendor123")
            db.session.add(vendor_user)
            db.session.flush()

            # Create vendor profile
            profile = VendorProfile(
                user_id=vendor_user.id,
                company_name=vendor_data["company_name"],
                business_number=vendor_data["business_number"],
                website=vendor_data["website"],
                description=(
                    f'{vendor_data["company_name"]} - '
                    "Professional tools for finance teams"
                ),
                verification_status=VendorVerificationStatus.APPROVED,
            )
            db.session.add(profile)
            db.session.flush()
            print(
                "Created vendor: %s / vendor123 - %s"
                % (vendor_data["email"], vendor_data["company_name"])
            )

            # Create listings for this vendor
            for listing_data in vendor_data["listings"]:
                listing = Listing(
                    vendor_id=profile.id,
                    category_id=categories_dict[listing_data["category"]].id,
                    title=listing_data["title"],
                    description=listing_data["description"],
                    price=Decimal(listing_data["price"]),
                    type=ListingType.DIGITAL,
                    status=ListingStatus.ACTIVE,
                    images=[],
                    tags=listing_data["tags"],
                    download_url=listing_data["download_url"],
                )
                db.session.add(listing)

                print(f"  Created listing: {listing_data['title']}")

    db.session.commit()
    print("Data initialization completed!")
