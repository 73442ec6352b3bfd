import importlib
import pkgutil


def include_routers(app, package_name, package_path):
    # 패키지 안에서 router 를 가진 모듈을 모두 등록
    for _, module_name, _ in pkgutil.iter_modules(package_path):
        module = importlib.import_module(f"directchat.{package_name}.{module_name}")
        if hasattr(module, "router"):
            app.include_router(module.router)
