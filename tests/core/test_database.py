from pathlib import Path
from typing import Iterable

from project_maps.core.database import (
    build_database_schema,
    build_table_module_mapping,
    parse_django,
    parse_mongoose,
    parse_prisma,
    parse_sequelize,
    parse_sqlalchemy,
    parse_typeorm,
)
from project_maps.core.graph import build_graph, resolve_records
from project_maps.core.models import FileRecord, ImportRef

from conftest import write_tree


def _make_record(path: str, markers: Iterable[str] = (), imports: Iterable[str] = ()) -> FileRecord:
    name = path.rsplit("/", 1)[-1]
    return FileRecord(
        path=path,
        name=name,
        extension=name.rsplit(".", 1)[-1],
        file_type="",
        language="",
        role="source",
        size=10,
        lines=1,
        modified=0.0,
        hash="",
        markers=list(markers),
        imports=[ImportRef(source=source) for source in imports],
    )


def _columns(table: dict) -> dict:
    return {column["name"]: column for column in table["columns"]}


PRISMA_SCHEMA = """\
model User {
  id        Int      @id @default(autoincrement())
  email     String   @unique
  nickname  String?
  posts     Post[]
  // comment
  @@map("app_users")
}

model Post {
  id       Int  @id
  author   User @relation(fields: [authorId], references: [id])
  authorId Int
}
"""


def test_prisma_models() -> None:
    tables = parse_prisma(PRISMA_SCHEMA, _make_record("prisma/schema.prisma"))

    user, post = tables
    assert (user["name"], user["model"], user["line"]) == ("app_users", "User", 1)
    columns = _columns(user)
    assert sorted(columns) == ["email", "id", "nickname"]
    assert columns["id"]["primary_key"]
    assert columns["nickname"]["nullable"]
    assert user["relations"] == [{"field": "posts", "target": "Post", "many": True}]
    assert post["name"] == "Post"
    assert post["relations"] == [{"field": "author", "target": "User", "many": False}]


def test_django_models() -> None:
    source = (
        "from django.db import models\n\n"
        "class UserProfile(models.Model):\n"
        "    bio = models.TextField(null=True)\n"
        "    owner = models.ForeignKey('auth.User', on_delete=models.CASCADE)\n\n"
        "class Tag(models.Model):\n"
        "    label = models.CharField(max_length=20)\n\n"
        "    class Meta:\n"
        "        db_table = 'blog_tags'\n\n"
        "class Helper:\n"
        "    pass\n"
    )

    tables = parse_django(source, _make_record("blog/models.py", ["django-model"]))

    assert [(t["name"], t["model"]) for t in tables] == [("user_profile", "UserProfile"), ("blog_tags", "Tag")]
    assert _columns(tables[0])["bio"]["nullable"]
    assert tables[0]["relations"] == [{"field": "owner", "target": "auth.User", "many": False}]


def test_sqlalchemy_models() -> None:
    source = (
        "class User(Base):\n"
        "    __tablename__ = 'users'\n"
        "    id = Column(Integer, primary_key=True)\n"
        "    email: Mapped[str] = mapped_column(String(120), nullable=False)\n"
        "    orders = relationship('Order', back_populates='user')\n\n"
        "class Order(Base):\n"
        "    __tablename__ = 'orders'\n"
        "    id = Column(Integer, primary_key=True)\n"
        "    user_id = Column(Integer, ForeignKey('users.id'))\n"
    )

    users, orders = parse_sqlalchemy(source, _make_record("app/models.py", ["sqlalchemy-model"]))

    columns = _columns(users)
    assert columns["id"]["primary_key"] and columns["id"]["type"] == "Integer"
    assert columns["email"]["type"] == "String"
    assert not columns["email"]["nullable"]
    assert users["relations"] == [{"field": "orders", "target": "Order", "many": False}]
    assert orders["relations"] == [{"field": "user_id", "target": "users", "many": False}]


def test_sequelize_define() -> None:
    source = (
        "const User = sequelize.define('User', {\n"
        "  username: DataTypes.STRING,\n"
        "  age: { type: DataTypes.INTEGER, allowNull: true },\n"
        "}, { tableName: 'app_users' });\n"
    )

    (table,) = parse_sequelize(source, _make_record("models/user.js", ["sequelize-model"]))

    assert (table["name"], table["model"]) == ("app_users", "User")
    assert [(c["name"], c["type"]) for c in table["columns"]] == [("username", "STRING"), ("age", "INTEGER")]


def test_typeorm_entity() -> None:
    source = (
        "@Entity('products')\n"
        "export class Product {\n"
        "  @PrimaryGeneratedColumn()\n"
        "  id: number;\n\n"
        "  @Column({ nullable: true })\n"
        "  title: string;\n\n"
        "  @ManyToOne(() => Category, (category) => category.products)\n"
        "  category: Category;\n"
        "}\n"
    )

    (table,) = parse_typeorm(source, _make_record("src/product.entity.ts", ["typeorm-entity"]))

    assert (table["name"], table["model"]) == ("products", "Product")
    columns = _columns(table)
    assert columns["id"]["primary_key"]
    assert columns["title"]["nullable"]
    assert table["relations"] == [{"field": "category", "target": "Category", "many": False}]


def test_mongoose_model() -> None:
    source = (
        "const orderItemSchema = new mongoose.Schema({\n"
        "  sku: String,\n"
        "  quantity: { type: Number, required: true },\n"
        "});\n"
        "module.exports = mongoose.model('OrderItem', orderItemSchema);\n"
    )

    (table,) = parse_mongoose(source, _make_record("models/orderItem.js", ["mongoose-model"]))

    assert (table["name"], table["model"]) == ("order_items", "OrderItem")
    assert [(c["name"], c["type"]) for c in table["columns"]] == [("sku", "String"), ("quantity", "Number")]


def test_build_schema_and_table_mapping(tmp_path: Path) -> None:
    write_tree(tmp_path, {
        "src/models/user.js": "const userSchema = new Schema({\n  name: String,\n});\nmodel('User', userSchema);\n",
        "src/services/users.js": "require('../models/user');\n",
        "src/reports/users.js": "require('../models/user');\n",
    })
    files = resolve_records([
        _make_record("src/models/user.js", ["mongoose-model"]),
        _make_record("src/services/users.js", imports=["../models/user"]),
        _make_record("src/reports/users.js", imports=["../models/user"]),
    ])

    schema, issues = build_database_schema(tmp_path, files)

    assert issues == []
    assert schema["orms"] == ["Mongoose"]
    assert schema["model_files"] == ["src/models/user.js"]
    assert schema["summary"] == {"total_tables": 1, "total_columns": 1, "total_relations": 0}

    file_modules = {"src/models/user.js": "models", "src/services/users.js": "services", "src/reports/users.js": "reports"}
    mapping = build_table_module_mapping(schema, file_modules, build_graph(files))

    assert mapping["tables"]["users"] == {
        "table": "users",
        "defined_in": ["models"],
        "modules": ["models", "reports", "services"],
    }
    assert mapping["modules"]["reports"] == ["users"]
    assert mapping["shared_tables"] == ["users"]


def test_unreadable_model_file_becomes_issue(tmp_path: Path) -> None:
    files = [_make_record("models/missing.py", ["django-model"])]

    schema, issues = build_database_schema(tmp_path, files)

    assert schema["tables"] == []
    assert [(issue.path, issue.stage) for issue in issues] == [("models/missing.py", "schema")]
