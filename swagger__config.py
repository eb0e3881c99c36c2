"""
Swagger/OpenAPI configuration for the PowerUp gym API
"""

SWAGGER_CONFIG = {
    "headers": [],
    "specs": [
        {
            "endpoint": "apispec",
            "route": "/apispec.json",
            "rule_filter": lambda rule: True,
            "model_filter": lambda tag: True,
        }
    ],
    "static_url_path": "/flasgger_static",
    "swagger_ui": True,
    "specs_route": "/api/docs",
}

SWAGGER_TEMPLATE = {
    "swagger": "2.0",
    "info": {
        "title": "PowerUp Gym API",
        "description": "REST API for gym management: accounts, members, instructors, subscriptions, payments, group classes and personal training",
        "version": "1.0.0",
    },
    "host": "",
    "basePath": "/",
    "schemes": ["http", "https"],
    "securityDefinitions": {
        "Bearer": {
            "type": "apiKey",
            "name": "Authorization",
            "in": "header",
            "description": 'JWT Authorization header using the Bearer scheme. Example: "Authorization: Bearer {token}"',
        }
    },
    "security": [{"Bearer": []}],
    "tags": [
        {"name": "Authentication", "description": "Login, registration and logout"},
        {"name": "Users", "description": "User accounts and roles"},
        {"name": "Instructors", "description": "Instructor profiles"},
        {"name": "Members", "description": "Member profiles"},
        {"name": "Subscriptions", "description": "Subscription plans"},
        {"name": "User Subscriptions", "description": "Plans held by users"},
        {"name": "Payments", "description": "Payments against user subscriptions"},
        {"name": "Group Classes", "description": "Scheduled group classes"},
        {"name": "PT Sessions", "description": "Personal training sessions"},
        {"name": "Dashboard", "description": "Member dashboard figures"},
    ],
    "definitions": {
        "Error": {
            "type": "object",
            "properties": {
                "status": {"type": "string", "example": "error"},
                "message": {"type": "string"},
            },
        },
        "Success": {
            "type": "object",
            "properties": {
                "status": {"type": "string", "example": "success"},
                "message": {"type": "string"},
            },
        },
        "User": {
            "type": "object",
            "properties": {
                "id": {"type": "integer"},
                "name": {"type": "string"},
                "email": {"type": "string", "format": "email"},
                "phone_number": {"type": "string"},
                "role": {"type": "string", "enum": ["Admin", "Instructor", "Member"]},
                "is_admin": {"type": "boolean"},
                "created_at": {"type": "string", "format": "date-time"},
                "updated_at": {"type": "string", "format": "date-time"},
            },
        },
        "LoginResponse": {
            "type": "object",
            "properties": {
                "status": {"type": "string", "example": "success"},
                "id": {"type": "integer"},
                "name": {"type": "string"},
                "email": {"type": "string"},
                "role": {"type": "string"},
                "token": {"type": "string"},
            },
        },
        "Subscription": {
            "type": "object",
            "properties": {
                "id": {"type": "integer"},
                "type": {"type": "string", "enum": ["Monthly", "Semestral", "Yearly"]},
                "total_price": {"type": "number", "format": "float"},
            },
        },
        "UserSubscription": {
            "type": "object",
            "properties": {
                "id": {"type": "integer"},
                "user_id": {"type": "integer"},
                "subscription_id": {"type": "integer"},
                "start_date": {"type": "string", "format": "date-time"},
                "end_date": {"type": "string", "format": "date-time"},
                "is_active": {"type": "boolean"},
            },
        },
        "Payment": {
            "type": "object",
            "properties": {
                "id": {"type": "integer"},
                "user_subscription_id": {"type": "integer"},
                "amount": {"type": "number", "format": "float"},
                "payment_date": {"type": "string", "format": "date-time"},
                "status": {
                    "type": "string",
                    "enum": ["Pending", "Completed", "Failed", "Refunded"],
                },
                "transaction_id": {"type": "string"},
            },
        },
        "PtSession": {
            "type": "object",
            "properties": {
                "id": {"type": "integer"},
                "instructor_id": {"type": "integer"},
                "member_id": {"type": "integer"},
                "price": {"type": "number", "format": "float"},
                "session_time": {"type": "string", "format": "date-time"},
                "notes": {"type": "string"},
                "status": {
                    "type": "string",
                    "enum": ["Scheduled", "Completed", "Cancelled", "NoShow"],
                },
            },
        },
    },
}
