translation = {
    "appName": "Task manager",
    "flash": {
        "session": {
            "create": {
                "success": "You are logged in",
                "error": "Wrong email or password",
                "rateLimited": "Too many login attempts. Please wait {minutes} minutes.",
            },
            "delete": {
                "success": "You are logged out",
            },
        },
        "users": {
            "notAllowed": "You cant edit another user",
            "create": {
                "success": "User registered successfully",
                "error": "Failed to register",
            },
            "update": {
                "success": "User changed",
                "error": "updating error",
            },
            "delete": {
                "success": "User deleted",
                "error": "Failed to delete user",
            },
        },
        "authError": "Access denied! Please login",
    },
    "errors": {
        "users": {
            "first_name": {
                "required": "First name is required",
                "tooLong": "First name must be at most {max_length} characters",
            },
            "last_name": {
                "required": "Last name is required",
                "tooLong": "Last name must be at most {max_length} characters",
            },
            "email": {
                "required": "Email is required",
                "invalid": "Email must be a valid address",
                "taken": "Email is already taken",
                "tooLong": "Email must be at most {max_length} characters",
            },
            "password": {
                "required": "Password is required",
                "tooShort": "Password must be at least {min_length} characters",
            },
        },
        "badRequest": "Bad request",
        "csrf": "CSRF token missing or invalid.",
        "forbidden": "Forbidden",
        "notFound": "Page not found",
        "serverError": "Something went wrong",
    },
    "layouts": {
        "application": {
            "users": "Users",
            "signIn": "Login",
            "signUp": "Register",
            "signOut": "Logout",
        },
    },
    "views": {
        "session": {
            "new": {
                "signIn": "Login",
                "email": "Email",
                "password": "Password",
                "submit": "Login",
            },
        },
        "users": {
            "actions": "actions",
            "fullName": "full name",
            "id": "ID",
            "email": "Email",
            "createdAt": "Created at",
            "firstName": "First name",
            "lastName": "Last name",
            "password": "Password",
            "edit": {
                "link": "Change",
                "submit": "change",
                "title": "changing user",
                "passwordHint": "Leave blank to keep the current password",
            },
            "delete": {
                "submit": "Delete",
                "confirm": "Delete your account?",
            },
            "new": {
                "submit": "Register",
                "signUp": "Register",
            },
        },
        "welcome": {
            "index": {
                "hello": "Hello from Hexlet!",
                "description": "Online programming school",
                "more": "Learn more",
            },
        },
    },
}
