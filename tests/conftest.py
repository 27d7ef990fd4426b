import json
from pathlib import Path
from typing import Dict

import pytest

from project_maps.core.config import ProjectMapsConfig


SHOP_API_FILES: Dict[str, str] = {
    "package.json": json.dumps({
        "name": "shop-api",
        "version": "1.0.0",
        "dependencies": {"express": "^4.18.0", "mongoose": "^7.0.0", "lodash": "^4.17.0"},
        "devDependencies": {"jest": "^29.0.0"},
    }, indent=2),
    "README.md": "# Shop API\n",
    "src/server.js": (
        "const express = require('express');\n"
        "const userRoutes = require('./routes/users');\n"
        "const orderRoutes = require('./routes/orders');\n"
        "\n"
        "const app = express();\n"
        "app.use('/users', userRoutes);\n"
        "app.use('/orders', orderRoutes);\n"
        "\n"
        "module.exports = app;\n"
    ),
    "src/routes/users.js": (
        "const express = require('express');\n"
        "const controller = require('../controllers/userController');\n"
        "\n"
        "const router = express.Router();\n"
        "router.get('/', controller.list);\n"
        "router.post('/', controller.create);\n"
        "\n"
        "module.exports = router;\n"
    ),
    "src/routes/orders.js": (
        "const express = require('express');\n"
        "const controller = require('../controllers/orderController');\n"
        "\n"
        "const router = express.Router();\n"
        "router.get('/:id', controller.show);\n"
        "\n"
        "module.exports = router;\n"
    ),
    "src/controllers/userController.js": (
        "const userService = require('../services/userService');\n"
        "\n"
        "async function list(req, res) {\n"
        "  res.json(await userService.listUsers());\n"
        "}\n"
        "\n"
        "async function create(req, res) {\n"
        "  res.json(await userService.getUser(req.body.id));\n"
        "}\n"
        "\n"
        "module.exports = { list, create };\n"
    ),
    "src/controllers/orderController.js": (
        "const orderService = require('../services/orderService');\n"
        "\n"
        "async function show(req, res) {\n"
        "  res.json(await orderService.getOrder(req.params.id));\n"
        "}\n"
        "\n"
        "module.exports = { show };\n"
    ),
    "src/services/userService.js": (
        "const User = require('../models/user');\n"
        "\n"
        "async function getUser(id) {\n"
        "  return User.findById(id);\n"
        "}\n"
        "\n"
        "async function listUsers() {\n"
        "  return User.find();\n"
        "}\n"
        "\n"
        "module.exports = { getUser, listUsers };\n"
    ),
    "src/services/orderService.js": (
        "const Order = require('../models/order');\n"
        "\n"
        "async function getOrder(id) {\n"
        "  return Order.findById(id);\n"
        "}\n"
        "\n"
        "module.exports = { getOrder };\n"
    ),
    "src/services/emailService.js": (
        "function sendEmail(to, subject) {\n"
        "  return { to, subject };\n"
        "}\n"
        "\n"
        "module.exports = { sendEmail };\n"
    ),
    "src/models/user.js": (
        "const mongoose = require('mongoose');\n"
        "\n"
        "const userSchema = new mongoose.Schema({\n"
        "  name: { type: String, required: true },\n"
        "  email: String,\n"
        "});\n"
        "\n"
        "module.exports = mongoose.model('User', userSchema);\n"
    ),
    "src/models/order.js": (
        "const mongoose = require('mongoose');\n"
        "const { sendEmail } = require('../services/emailService');\n"
        "\n"
        "const orderSchema = new mongoose.Schema({\n"
        "  total: Number,\n"
        "  status: String,\n"
        "});\n"
        "\n"
        "module.exports = mongoose.model('Order', orderSchema);\n"
    ),
    "tests/users.test.js": (
        "const { getUser } = require('../src/services/userService');\n"
        "\n"
        "test('loads a user', async () => {\n"
        "  expect(await getUser(1)).toBeDefined();\n"
        "});\n"
    ),
    "node_modules/express/index.js": "module.exports = function express() {};\n",
}


def write_tree(root: Path, files: Dict[str, str]) -> Path:
    for relative_path, content in files.items():
        target = root / relative_path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
    return root


@pytest.fixture
def shop_api(tmp_path: Path) -> Path:
    """A small Express API laid out as routes -> controllers -> services -> models."""
    return write_tree(tmp_path / "shop-api", SHOP_API_FILES)


@pytest.fixture
def config() -> ProjectMapsConfig:
    return ProjectMapsConfig(max_workers=2, respect_gitignore=False)
