from tortoise import BaseDBAsyncClient


async def upgrade(db: BaseDBAsyncClient) -> str:
    return """
        CREATE TABLE IF NOT EXISTS "customer" (
    "id" UUID NOT NULL PRIMARY KEY,
    "created_at" TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
    "updated_at" TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
    "name" VARCHAR(255) NOT NULL,
    "branch" VARCHAR(3)
);
COMMENT ON COLUMN "customer"."branch" IS 'JHB: JHB\nCT: CT';
COMMENT ON TABLE "customer" IS 'A customer that leases machines.';
CREATE TABLE IF NOT EXISTS "make" (
    "id" UUID NOT NULL PRIMARY KEY,
    "created_at" TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
    "updated_at" TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
    "name" VARCHAR(100) NOT NULL UNIQUE
);
COMMENT ON TABLE "make" IS 'A machine manufacturer, e.g. "Konica".';
CREATE TABLE IF NOT EXISTS "machinemodel" (
    "id" UUID NOT NULL PRIMARY KEY,
    "created_at" TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
    "updated_at" TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
    "name" VARCHAR(100) NOT NULL,
    "paper_size" VARCHAR(2) NOT NULL DEFAULT 'A4',
    "model_type" VARCHAR(6) NOT NULL DEFAULT 'mono',
    "make_id" UUID NOT NULL REFERENCES "make" ("id") ON DELETE CASCADE,
    CONSTRAINT "uid_machinemode_make_id_5c1f0e" UNIQUE ("make_id", "name")
);
COMMENT ON COLUMN "machinemodel"."paper_size" IS 'A3: A3\nA4: A4';
COMMENT ON COLUMN "machinemodel"."model_type" IS 'MONO: mono\nCOLOUR: colour';
COMMENT ON TABLE "machinemodel" IS 'A concrete model of a make, e.g. "bizhub C300i".';
CREATE TABLE IF NOT EXISTS "machine" (
    "id" UUID NOT NULL PRIMARY KEY,
    "created_at" TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
    "updated_at" TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
    "serial_number" VARCHAR(100) NOT NULL UNIQUE,
    "contract_reference" VARCHAR(100),
    "mono_enabled" BOOL NOT NULL DEFAULT True,
    "colour_enabled" BOOL NOT NULL DEFAULT False,
    "scan_enabled" BOOL NOT NULL DEFAULT False,
    "is_active" BOOL NOT NULL DEFAULT True,
    "is_decommissioned" BOOL NOT NULL DEFAULT False,
    "branch" VARCHAR(3) NOT NULL DEFAULT 'JHB',
    "customer_id" UUID REFERENCES "customer" ("id") ON DELETE CASCADE,
    "model_id" UUID REFERENCES "machinemodel" ("id") ON DELETE CASCADE
);
COMMENT ON COLUMN "machine"."branch" IS 'JHB: JHB\nCT: CT';
COMMENT ON TABLE "machine" IS 'A copier or printer placed at a customer.';
CREATE TABLE IF NOT EXISTS "user" (
    "id" UUID NOT NULL PRIMARY KEY,
    "created_at" TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
    "updated_at" TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
    "name" VARCHAR(255) NOT NULL,
    "email" VARCHAR(255) NOT NULL UNIQUE,
    "role" VARCHAR(8) NOT NULL DEFAULT 'capturer',
    "branch" VARCHAR(3)
);
COMMENT ON COLUMN "user"."role" IS 'ADMIN: admin\nCAPTURER: capturer';
COMMENT ON COLUMN "user"."branch" IS 'JHB: JHB\nCT: CT';
COMMENT ON TABLE "user" IS 'A back-office user who captures readings and part orders.';
CREATE TABLE IF NOT EXISTS "auditlog" (
    "id" UUID NOT NULL PRIMARY KEY,
    "created_at" TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
    "updated_at" TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
    "action" VARCHAR(100) NOT NULL,
    "entity_type" VARCHAR(50) NOT NULL,
    "entity_id" VARCHAR(255),
    "details" JSONB,
    "user_id" UUID REFERENCES "user" ("id") ON DELETE CASCADE
);
COMMENT ON TABLE "auditlog" IS 'A record of a user action, written as a best-effort side effect.';
CREATE TABLE IF NOT EXISTS "modelpart" (
    "id" UUID NOT NULL PRIMARY KEY,
    "created_at" TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
    "updated_at" TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
    "part_name" VARCHAR(255) NOT NULL,
    "item_code" VARCHAR(100),
    "part_type" VARCHAR(7) NOT NULL DEFAULT 'general',
    "toner_color" VARCHAR(7),
    "expected_yield" INT NOT NULL,
    "cost_rand" DECIMAL(12,2) NOT NULL,
    "meter_type" VARCHAR(6) NOT NULL DEFAULT 'mono',
    "branch" VARCHAR(3) NOT NULL DEFAULT 'JHB',
    "is_active" BOOL NOT NULL DEFAULT True,
    "model_id" UUID NOT NULL REFERENCES "machinemodel" ("id") ON DELETE CASCADE
);
COMMENT ON COLUMN "modelpart"."part_type" IS 'GENERAL: general\nTONER: toner';
COMMENT ON COLUMN "modelpart"."toner_color" IS 'BLACK: black\nCYAN: cyan\nMAGENTA: magenta\nYELLOW: yellow';
COMMENT ON COLUMN "modelpart"."expected_yield" IS 'Expected life in clicks';
COMMENT ON COLUMN "modelpart"."meter_type" IS 'MONO: mono\nCOLOUR: colour\nTOTAL: total';
COMMENT ON COLUMN "modelpart"."branch" IS 'JHB: JHB\nCT: CT';
COMMENT ON TABLE "modelpart" IS 'A consumable part defined for a machine model.';
CREATE TABLE IF NOT EXISTS "partreplacement" (
    "id" UUID NOT NULL PRIMARY KEY,
    "created_at" TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
    "updated_at" TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
    "order_date" DATE NOT NULL,
    "prior_reading" BIGINT NOT NULL,
    "current_reading" BIGINT NOT NULL,
    "usage" BIGINT NOT NULL,
    "remaining_toner_percent" DECIMAL(5,2),
    "yield_met" BOOL NOT NULL,
    "shortfall_clicks" BIGINT NOT NULL,
    "adjusted_shortfall_clicks" BIGINT NOT NULL,
    "cost_per_click" DECIMAL(14,6) NOT NULL,
    "display_charge_rand" DECIMAL(12,2) NOT NULL,
    "expected_yield_snapshot" INT NOT NULL,
    "cost_rand_snapshot" DECIMAL(12,2) NOT NULL,
    "branch" VARCHAR(3) NOT NULL,
    "captured_by_id" UUID REFERENCES "user" ("id") ON DELETE CASCADE,
    "machine_id" UUID NOT NULL REFERENCES "machine" ("id") ON DELETE CASCADE,
    "model_part_id" UUID NOT NULL REFERENCES "modelpart" ("id") ON DELETE CASCADE
);
COMMENT ON COLUMN "partreplacement"."branch" IS 'JHB: JHB\nCT: CT';
COMMENT ON TABLE "partreplacement" IS 'A part order/replacement event with its yield and charge calculation.';
CREATE TABLE IF NOT EXISTS "reading" (
    "id" UUID NOT NULL PRIMARY KEY,
    "created_at" TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
    "updated_at" TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
    "year" INT NOT NULL,
    "month" INT NOT NULL,
    "mono_reading" BIGINT,
    "colour_reading" BIGINT,
    "scan_reading" BIGINT,
    "mono_usage" BIGINT,
    "colour_usage" BIGINT,
    "scan_usage" BIGINT,
    "note" VARCHAR(500),
    "branch" VARCHAR(3) NOT NULL,
    "captured_by_id" UUID REFERENCES "user" ("id") ON DELETE CASCADE,
    "machine_id" UUID NOT NULL REFERENCES "machine" ("id") ON DELETE CASCADE,
    CONSTRAINT "uid_reading_machine_6d2a41" UNIQUE ("machine_id", "year", "month")
);
COMMENT ON COLUMN "reading"."branch" IS 'Machine branch at capture time';
COMMENT ON TABLE "reading" IS 'Meter values of a machine for one calendar month.';
CREATE TABLE IF NOT EXISTS "submission" (
    "id" UUID NOT NULL PRIMARY KEY,
    "created_at" TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
    "updated_at" TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
    "year" INT NOT NULL,
    "month" INT NOT NULL,
    "branch" VARCHAR(3) NOT NULL,
    "submitted_at" TIMESTAMPTZ NOT NULL,
    "submitted_by_id" UUID REFERENCES "user" ("id") ON DELETE CASCADE,
    CONSTRAINT "uid_submission_year_0b7c93" UNIQUE ("year", "month", "branch")
);
COMMENT ON COLUMN "submission"."branch" IS 'JHB: JHB\nCT: CT';
COMMENT ON TABLE "submission" IS 'Lock marker: readings for (year, month, branch) were exported.';
CREATE TABLE IF NOT EXISTS "aerich" (
    "id" SERIAL NOT NULL PRIMARY KEY,
    "version" VARCHAR(255) NOT NULL,
    "app" VARCHAR(100) NOT NULL,
    "content" JSONB NOT NULL
);"""


async def downgrade(db: BaseDBAsyncClient) -> str:
    return """
        """
